import sys
import os

# Add the parent directory to the path so we can import duel_suite and run_experiments
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
