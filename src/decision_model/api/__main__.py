# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Entry point for running the API as a module: python -m decision_model.api
"""
import sys

from .app import app, HOST, PORT, LOCAL_DEV

if __name__ == '__main__':
    print(f"Starting decision-model API on {HOST}:{PORT}", file=sys.stderr, flush=True)
    app.run(host=HOST, port=PORT, debug=LOCAL_DEV)
