"""
Signal Pipeline Module

Scheduled LinkedIn content-intelligence pipeline:
scrape -> process -> vectorize -> generate -> send, driven by /cron/advance.
"""
