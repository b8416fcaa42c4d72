import sys
import os

# backend/ modules are imported by plain name, as the scripts do
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

# scripts/ for the CLI tests
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "scripts"))
