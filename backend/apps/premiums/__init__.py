"""Premium billing: due-date calendar, payment reconciliation and status lists."""
