"""TutorLink session matching and lifecycle engine."""
