"""SkyOptima airspace core -- torus traffic simulation with conflict avoidance."""
