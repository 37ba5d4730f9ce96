"""Shop gallery service: cached screenshots, cached dataset listing and a progressive gallery controller."""
