"""
Infrastructure layer: remote API access, snapshot storage, configuration,
logging and token providers.
"""
