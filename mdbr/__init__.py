"""MongoDB reconciler (MDBR).

Controller that drives a ``MongoDB`` custom resource toward its declared state:
 - a client ``Service`` on port 27017
 - a ``StatefulSet`` running mongod plus a membership sidecar
 - the parent's status mirrored from both children

The reconcile pass itself is synchronous and stateless; retries and event
delivery live in :mod:`mdbr.manager`.
"""
