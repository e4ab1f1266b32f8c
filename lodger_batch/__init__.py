"""
lodger_batch -- periodic sweeps over tenancies.

The daily expiry-reminder sweep and the schedule top-up run through one
``BatchRunner`` against tasks registered in a ``TaskRegistry``.
"""
