"""Payment gateway, webhook and refund services."""
