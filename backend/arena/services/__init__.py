"""Domain services kept apart from the Flask and Socket.IO transport layer."""
