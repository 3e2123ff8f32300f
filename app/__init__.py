"""
Application Package

Process entry point: wires settings, store, exchanges, channels and services
together and runs the polling loop.
"""
