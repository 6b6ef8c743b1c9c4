"""Completion-service agents: writer, verifier and improver."""
