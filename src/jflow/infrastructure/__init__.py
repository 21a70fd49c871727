"""
Infrastructure layer: the NumPy CPU implementations behind the domain
contracts (tensor engine, kernels, layers, models, optimizers, persistence).
"""
