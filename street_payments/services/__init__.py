"""Domain services for tips, reconciliation and reporting."""
