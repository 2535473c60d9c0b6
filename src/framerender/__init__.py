"""framerender: render client-supplied frame sequences into short-lived videos."""
