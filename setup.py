from setuptools import setup, find_packages

package_name = 'leap_driver'

setup(
    name=package_name,
    version='1.0.0',
    packages=find_packages(exclude=['test']),
    python_requires='>=3.9',
    install_requires=[
        'setuptools',
        'fastapi>=0.104.0',
        'uvicorn>=0.24.0',
        'websockets>=12.0',
        'paho-mqtt>=2.0.0',
    ],
    extras_require={
        'test': [
            'pytest',
            'httpx',
        ],
    },
    zip_safe=True,
    description='Leap Motion driver publishing hand and gesture events',
    license='MIT',
    tests_require=['pytest'],
    entry_points={
        'console_scripts': [
            'leap_driver = leap_driver.main:main',
        ],
    },
)
