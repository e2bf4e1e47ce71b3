"""
Middleware Module
CORS setup and the catch-all error handler that records unhandled
exceptions in the error_logs table.
"""
