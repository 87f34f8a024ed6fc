"""
Main entry point for the Monitoring Operator.
"""
from monitoring_operator.main import run

if __name__ == "__main__":
    run()
