"""Academic standing sync: portal scraping, cached standings and the ranking."""
