#!/usr/bin/env python3
"""
SAMPi - SAM4S ECR data reader, parser and logger

Usage: main.py [config.json]
"""

import sys

from sampi.agent import main


if __name__ == '__main__':
    sys.exit(main())
