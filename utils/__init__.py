"""Plotting helpers for MPC simulation results."""
