#!/usr/bin/env python3
"""
Main entry point for the Hanna IRC bot
"""

from hanna_irc.main import run

if __name__ == "__main__":
    run()
