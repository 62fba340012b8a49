#!/usr/bin/env python3
"""
Local entrypoint for the simulator API.

The application lives under `launch_sim/`. Run `python3 server.py` to serve it
on 127.0.0.1:8000.
"""

from launch_sim.main import app, run


if __name__ == "__main__":
    run()
