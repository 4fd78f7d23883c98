"""Setup configuration for the Support Assistant."""

from setuptools import setup, find_packages

setup(
    name='rag-support-assistant',
    version='1.0.0',
    description='Retrieval-augmented support chat that answers only from your own documents',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.11',
    install_requires=[
        'python-dotenv>=1.0.0',
        'PyYAML>=6.0',
        'click>=8.1.7',
        'llama-cpp-python>=0.2.27',
        'sentence-transformers>=2.2.2',
        'PyPDF2>=3.0.1',
        'chromadb>=0.4.22',
    ],
    extras_require={
        'test': ['pytest>=7.4'],
    },
    entry_points={
        'console_scripts': [
            'support-assistant=support_assistant.cli:cli',
        ],
    },
)
