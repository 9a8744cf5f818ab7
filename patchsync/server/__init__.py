"""
PatchSync Server Package

FastAPI remote store for patch logs. Use server.CreateApp to build the
application or server.RunServer to serve it with uvicorn.
"""
