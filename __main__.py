"""Pulumi program: the monitoring stack."""

from olly.stack import main

main()
