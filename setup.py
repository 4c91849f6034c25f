from setuptools import setup, find_packages

setup(
    name="candle_feed",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "colorama",
        "numpy",
        "requests",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        'console_scripts': [
            'candle-feed=candle_feed.cli:main',
        ],
    },
    # Metadata
    author="Bwahharharrr",
    author_email="your.email@example.com",
    description="Near-real-time OHLCV bars reconstructed by polling exchange REST endpoints",
    long_description=open('README.md').read(),
    long_description_content_type="text/markdown",
    keywords="trading,candles,bitmex,live,crypto",
    url="https://github.com/Bwahharharrr/candle_feed",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Financial and Insurance Industry",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
    ],
    python_requires=">=3.8",
)
