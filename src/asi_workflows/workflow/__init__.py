"""Schema-constrained agent invocation with timeout and retry policy.

Call path: ``RetryController`` → ``race_with_timeout(AgentInvoker.invoke)`` →
``ModelBackend`` → schema validation. Only the retry controller decides whether a
classified failure is retried; the invoker, timeout guard and backend only classify.
"""
