"""Tkinter editing surface."""
