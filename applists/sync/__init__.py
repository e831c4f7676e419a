"""Reconciliation engine.

- ``reconciler``: pure plan computation from want list, installed state and policy
- ``executor``: gated, failure-isolated execution of a plan against one backend
- ``engine``: per-backend orchestration across all selected backends
- ``report``: human-readable rendering of plans and results
"""
