"""Schedule analyses built on the CPM engine."""
