"""SKYOPTIMA request layer -- FastAPI app, settings and routers."""
