"""Web chat backend with a tool-calling agent."""
