"""Domain models shared by every analytics component."""
