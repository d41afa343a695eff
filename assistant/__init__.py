"""Tool-calling console assistants for arXiv papers and concert bookings."""
