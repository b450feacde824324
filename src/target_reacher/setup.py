from setuptools import find_packages, setup

package_name = 'target_reacher'

setup(
    name=package_name,
    version='0.1.0',
    packages=find_packages(exclude=['test']),
    data_files=[
        ('share/ament_index/resource_index/packages',
            ['resource/' + package_name]),
        ('share/' + package_name, ['package.xml']),
        ('share/' + package_name + '/launch',
            ['launch/target_reacher.launch.py']),
        ('share/' + package_name + '/config',
            ['config/final_params.yaml']),
    ],

    install_requires=['setuptools', 'numpy'],
    zip_safe=True,
    maintainer='awan0888',
    maintainer_email='awan.1389a@gmail.com',
    description='Drives to a staging goal, spins until an ArUco marker is seen and '
                'sends the robot to the destination configured for that marker',
    license='TODO: License declaration',
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'target_reacher = target_reacher.target_reacher:main'
        ],
    },
)
