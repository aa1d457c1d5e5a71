"""Execution record query and delivery resend resources."""
