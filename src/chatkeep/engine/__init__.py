"""Key registry and session store engine."""
