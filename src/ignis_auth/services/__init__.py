"""Authentication services orchestrating the web and voice channels."""
