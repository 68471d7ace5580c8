"""
Business layer for QR assets.
Token generation, uniqueness resolution, inventory replenishment, lifecycle
transitions and resource binding. Everything here talks to storage only
through the AssetStore contract.
"""
