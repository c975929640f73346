"""
Quiz submission and learner progress backend.
"""
