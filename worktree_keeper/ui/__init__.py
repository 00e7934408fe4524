"""Terminal UI components for worktree-keeper."""
