from setuptools import setup


with open('README.md', encoding='utf-8') as f:
    long_description = f.read()

with open('requirements.txt', 'r') as f:
    requirements = [l.strip() for l in f if l.strip()]

setup(name='ledgerenv',
      version='0.1.0',
      description='Shared bitcoin, ethereum and lightning nodes for cross-chain swap integration tests',
      long_description=long_description,
      long_description_content_type='text/markdown',
      install_requires=requirements,
      extras_require={
          'test': ['pytest'],
      },
      python_requires='>=3.8',
      license='MIT',
      packages=['ledgerenv', 'ledgerenv.ledgers', 'ledgerenv.wallets'],
      zip_safe=True)
