"""
Consumer contract tests.

These tests record the SF-Consumer expectations of the VAIS-Producer
BulkUsers API into a pact file through the pactkit mock server.
"""
