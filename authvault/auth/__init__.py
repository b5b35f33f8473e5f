"""Authentication decision engine and its models"""
