"""Rolling driver upgrade state machine for per-node driver daemonsets."""
