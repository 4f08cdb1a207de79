"""Bearer-token authentication (verification only)"""
