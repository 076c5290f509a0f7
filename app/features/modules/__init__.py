"""
Module access feature.

Company-level module grants, per-employee module permissions, the cascade that
removes employee permissions when a company grant is revoked, and the sweep
that removes permissions orphaned by employees changing company.
"""
