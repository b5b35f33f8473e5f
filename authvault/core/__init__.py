"""Core helpers: settings and named locks"""
