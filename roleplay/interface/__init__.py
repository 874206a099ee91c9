"""Terminal chat interface: session controller and Textual front end."""
