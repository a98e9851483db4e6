"""
abs_provisioner

This package provisions and tears down ephemeral test machines through the
ABS pooling service and records them in a litmus style inventory file.

We keep modules small and well separated:
core contains shared data structures, settings and errors
inventory contains the inventory store and its file plugin
pooling contains the ABS request builder, client, translator and teardown
auth contains token lookup
agent contains the provision engine and the task runner
"""
