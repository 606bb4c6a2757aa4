"""Stream processing: line assembly, snapshots, sanitizing and risk scoring."""
